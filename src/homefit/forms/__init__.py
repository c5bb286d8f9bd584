"""
Diálogos de mutación: contacto, visita, edición de listing, registro
de broker, alta de cuenta, perfil y preferencias.
"""

from homefit.forms.base import BaseDialog, DialogState, Notice
from homefit.forms.broker_registration import STEPS, BrokerRegistrationDialog
from homefit.forms.contact import ContactBrokerDialog, default_contact_message
from homefit.forms.edit_listing import EditListingDialog, split_amenities
from homefit.forms.preferences import PreferenceDialog
from homefit.forms.profile import ProfileDialog
from homefit.forms.signup import SignupDialog
from homefit.forms.tour import ScheduleTourDialog
from homefit.forms import validators

__all__ = [
    "BaseDialog",
    "DialogState",
    "Notice",
    "ContactBrokerDialog",
    "default_contact_message",
    "ScheduleTourDialog",
    "EditListingDialog",
    "split_amenities",
    "BrokerRegistrationDialog",
    "STEPS",
    "SignupDialog",
    "ProfileDialog",
    "PreferenceDialog",
    "validators",
]
