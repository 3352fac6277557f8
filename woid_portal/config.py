# woid_portal/config.py
# Reads config.ini, the single settings file shared by the DAL and the pages.

import configparser
import urllib.parse
from dataclasses import dataclass
from typing import Mapping, Tuple

DEFAULT_CONFIG_PATH = 'config.ini'
DEFAULT_SQL_PORT = 1433


@dataclass(frozen=True)
class PortalSettings:
    timezone: str = "America/New_York"
    production_marker: str = ""
    log_dir: str = "logs"


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> configparser.ConfigParser:
    config = configparser.ConfigParser()
    config.read(config_path)
    return config


def portal_settings(config: configparser.ConfigParser) -> PortalSettings:
    """Builds PortalSettings from the optional [portal] section."""
    if not config.has_section('portal'):
        return PortalSettings()
    section = config['portal']
    defaults = PortalSettings()
    return PortalSettings(
        timezone=section.get('timezone', defaults.timezone),
        production_marker=section.get('production_marker', defaults.production_marker),
        log_dir=section.get('log_dir', defaults.log_dir),
    )


def server_and_port(value: str) -> Tuple[str, int]:
    """Splits a 'host,port' server setting; the port defaults to 1433."""
    parts = value.split(',')
    server = parts[0].strip()
    port = int(parts[1]) if len(parts) > 1 and parts[1].strip() else DEFAULT_SQL_PORT
    return server, port


def sqlalchemy_url(db_config: Mapping[str, str]) -> str:
    """Builds the mssql+pyodbc URL used by pages that read straight into pandas."""
    server, port = server_and_port(db_config['server'])
    password = urllib.parse.quote_plus(db_config['password'])
    return (
        f"mssql+pyodbc://{db_config['user']}:{password}@"
        f"{server}:{port}/{db_config['database']}?"
        f"driver=ODBC+Driver+18+for+SQL+Server&TrustServerCertificate=yes"
    )
