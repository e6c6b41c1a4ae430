from roboshop.models.machine import Machine, MaintenanceType
from roboshop.models.maintenance_record import MaintenanceRecord
from roboshop.models.rental import Rental
from roboshop.models.installation import InstallationAppointment
from roboshop.models.callback import PhoneCallback, CallbackReason, CALLBACK_REASON_LABELS
from roboshop.models.config_entry import ConfigEntry

__all__ = [
    "Machine",
    "MaintenanceType",
    "MaintenanceRecord",
    "Rental",
    "InstallationAppointment",
    "PhoneCallback",
    "CallbackReason",
    "CALLBACK_REASON_LABELS",
    "ConfigEntry",
]
