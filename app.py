"""
Flask captive portal that authorizes hotspot guests on a UniFi controller.

Features:
- Landing page for the UniFi external portal redirect (/guest/s/<site>/)
- Guest authorization with selectable durations and an optional data quota
- One shared UniFi client for the whole process (see client_factory)
- Rate-limited authorization endpoint
"""

# -------------------------------
# Imports
# -------------------------------
import os
import re
import logging
from datetime import datetime, timezone
from flask import Flask, request, render_template, redirect, flash, jsonify, url_for
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_wtf.csrf import CSRFProtect
from flask_talisman import Talisman
import client_factory
from forms import GuestAuthorizeForm
from unifi_client import UnifiError, global_holder

logging.basicConfig(level=logging.INFO,format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
logger = logging.getLogger(__name__)

csp = {
    'default-src': [
        '\'self\'',  # Only allow content from your own domain
    ],
    'style-src': [
        '\'self\'',
        'https://cdn.jsdelivr.net',
    ],
    'img-src': [
        '\'self\'',
        'data:',
    ],
}

csrf = CSRFProtect()
limiter = Limiter(get_remote_address)

# -------------------------------
# Utility Functions
# -------------------------------
DURATION_LABELS = {
    'm': 'Minute',
    'h': 'Hour',
    'd': 'Day',
    'w': 'Week',
}

DURATION_MINUTES = {
    'm': 1,
    'h': 60,
    'd': 60 * 24,
    'w': 60 * 24 * 7,
}

def duration_minutes(duration: str) -> int:
    """
    Returns the number of minutes in a duration string such as 30m, 4h, 1d or 1w.
    Raises ValueError for anything else.
    """
    match = re.fullmatch(r"(\d+)([mhdw])", duration.strip())
    if not match:
        raise ValueError(f"Invalid duration: {duration!r}")
    num, unit = int(match.group(1)), match.group(2)
    if num < 1:
        raise ValueError(f"Invalid duration: {duration!r}")
    return num * DURATION_MINUTES[unit]

def parse_duration_options(raw):
    """
    Turns "1h,1d,1w" into select choices keyed by minutes: [('60', '1 Hour'), ...]
    Entries that don't parse are skipped.
    """
    choices = []
    for opt in raw.split(','):
        opt = opt.strip()
        try:
            minutes = duration_minutes(opt)
        except ValueError:
            logger.warning("Ignoring invalid duration option %r", opt)
            continue
        num, unit = int(opt[:-1]), opt[-1]
        label = f"{num} {DURATION_LABELS[unit]}{'s' if num > 1 else ''}"
        choices.append((str(minutes), label))
    return choices

def format_expiry(timestamp):
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime('%Y-%m-%d %H:%M:%S %Z')

# -------------------------------
# Application Factory
# -------------------------------
def create_app(holder=None, config=None):
    """
    Builds the portal app. holder is the ClientHolder the routes take the UniFi
    client from; by default the process-wide one, initialized from the environment.
    """
    app = Flask(__name__)
    app.secret_key = os.environ.get('SECRET_KEY')
    app.config['TITLE'] = os.environ.get('TITLE', 'Guest WiFi')
    app.config['DURATION_OPTIONS'] = parse_duration_options(os.environ.get('DURATION_OPTIONS', '1h,1d,1w'))
    app.config['DATA_QUOTA_MB'] = int(os.environ.get('DATA_QUOTA_MB', '0')) or None
    app.config['SESSION_COOKIE_HTTPONLY'] = True
    app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'
    if config:
        app.config.update(config)

    if not app.secret_key:
        raise RuntimeError("SECRET_KEY environment variable not set!") #Ensure app won't run without secret key

    if holder is None:
        holder = global_holder()
        if not holder.is_initialized:
            client_factory.init_global_client()
    app.extensions['unifi_client_holder'] = holder

    Talisman(app, force_https=False, content_security_policy=csp)
    csrf.init_app(app)
    limiter.init_app(app)

    logger.info("DURATION OPTIONS = %s", app.config['DURATION_OPTIONS'])
    register_routes(app)
    return app

def get_client(app):
    return app.extensions['unifi_client_holder'].instance()

# -------------------------------
# Routes
# -------------------------------
def register_routes(app):

    @app.route('/healthz')
    def healthz():
        client = get_client(app)
        return jsonify({'status': 'ok', 'unifi': client.auth_state.status.value})

    @app.route('/guest/s/<site>/', methods=['GET'])
    def portal(site):
        """
        Landing page the controller redirects unauthorized guests to.
        UniFi passes the client MAC (id), AP MAC (ap), timestamp (t), original URL (url) and SSID.
        """
        form = GuestAuthorizeForm(
            duration_choices=app.config['DURATION_OPTIONS'],
            data={
                'mac': request.args.get('id', ''),
                'ap_mac': request.args.get('ap', ''),
                'redirect_url': request.args.get('url', ''),
                'ssid': request.args.get('ssid', ''),
            },
        )
        return render_template('portal.html', form=form, site=site, title=app.config['TITLE'])

    @app.route('/guest/authorize', methods=['POST'])
    @limiter.limit("10 per minute")
    def authorize():
        """
        Called by the 'Connect' button. Authorizes the guest MAC on the controller.
        """
        form = GuestAuthorizeForm(duration_choices=app.config['DURATION_OPTIONS'])
        client = get_client(app)
        if not form.validate_on_submit():
            for field, errors in form.errors.items():
                logger.info("Rejected guest form field %s: %s", field, errors)
            flash("Invalid request. Please reconnect to the WiFi network and try again.", "danger")
            return redirect(url_for('portal', site=client.site))

        try:
            guest = client.guests.authorize(
                form.mac.data,
                minutes=int(form.duration.data),
                megabytes=app.config['DATA_QUOTA_MB'],
                ap_mac=form.ap_mac.data or None,
            )
        except UnifiError as e:
            logger.error("Failed to authorize guest %s: %s", form.mac.data, e)
            flash("Failed to connect you to the network. Please try again or contact staff.", "danger")
            return redirect(url_for('portal', site=client.site))

        logger.info("Authorized guest %s until %s", guest.mac, format_expiry(guest.expires_at))
        redirect_url = form.redirect_url.data or ''
        if not redirect_url.startswith(('http://', 'https://')):
            redirect_url = None # only offer plain web links back
        return render_template(
            'success.html',
            guest=guest,
            expires=format_expiry(guest.expires_at),
            redirect_url=redirect_url,
            title=app.config['TITLE'],
        )

# -------------------------------
# Main Entry Point
# -------------------------------
if __name__ == '__main__':
    create_app().run(host='0.0.0.0', port=int(os.environ.get('PORT', '8080')))
