# unifi_client/sites.py

import logging

from .errors import SiteNotFoundError
from .models import Site, SubsystemHealth

logger = logging.getLogger(__name__)

SITE_MANAGER = "/api/s/default/cmd/sitemgr"


class SiteApi:
    def __init__(self, client):
        self.client = client

    def list(self):
        """Sites the logged-in admin can see."""
        return self.client.get_json("/api/self/sites", model=Site.from_dict) or []

    def get(self, site_id):
        for site in self.list():
            if site.id == site_id:
                return site
        raise SiteNotFoundError(site_id)

    def get_by_name(self, name):
        """Looks a site up by its short name or its friendly description."""
        for site in self.list():
            if name in (site.name, site.desc):
                return site
        raise SiteNotFoundError(name)

    def create(self, name, description):
        """
        Creates a site. The controller does not echo the new site back,
        so it is looked up by name afterwards.
        """
        logger.info("Creating site %s", name)
        self.client.post_json(SITE_MANAGER, {"cmd": "add-site", "name": name, "desc": description})
        return self.get_by_name(name)

    def update(self, site_id, description):
        self.get(site_id)
        logger.info("Updating site %s", site_id)
        self.client.post_json(SITE_MANAGER, {"cmd": "update-site", "site_id": site_id, "desc": description})
        return self.get(site_id)

    def delete(self, site_id):
        self.get(site_id)
        logger.info("Deleting site %s", site_id)
        self.client.post_json(SITE_MANAGER, {"cmd": "delete-site", "site_id": site_id})

    def health(self):
        return self.client.get_json(self.client.site_path("stat/health"), model=SubsystemHealth.from_dict) or []
