from isitdown.models.user import User
from isitdown.models.website import Website
from isitdown.models.incident import Incident
from isitdown.models.outage_report import OutageReport
from isitdown.models.monitored_website import MonitoredWebsite

__all__ = ["User", "Website", "Incident", "OutageReport", "MonitoredWebsite"]
