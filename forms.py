from flask_wtf import FlaskForm
from wtforms import SelectField, SubmitField, HiddenField
from wtforms.validators import DataRequired, Length, Optional, Regexp

MAC_ADDRESS_RE = r"^([0-9A-Fa-f]{2}:){5}[0-9A-Fa-f]{2}$"
MAC_MESSAGE = "MAC address must look like 00:11:22:33:44:55"

class GuestAuthorizeForm(FlaskForm):
    mac = HiddenField(validators=[DataRequired(), Regexp(MAC_ADDRESS_RE, message=MAC_MESSAGE)])
    ap_mac = HiddenField(validators=[Optional(), Regexp(MAC_ADDRESS_RE, message=MAC_MESSAGE)])
    redirect_url = HiddenField(validators=[Optional(), Length(max=2048)])
    ssid = HiddenField(validators=[Optional(), Length(max=32)])
    duration = SelectField('Select Duration', validators=[DataRequired()])
    submit = SubmitField('Connect')

    def __init__(self, duration_choices=None, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.duration.choices = duration_choices or [('60','1 Hour'),('1440','1 Day'),('10080','1 Week')]
