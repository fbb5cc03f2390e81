# Contacts
# Display-name resolution with a per-session cache

from wa_connector.contacts.resolver import (
    DEFAULT_CONTACT_NAME,
    NameResolver,
    best_contact_name,
    parse_number_from_wid,
)

__all__ = [
    "DEFAULT_CONTACT_NAME",
    "NameResolver",
    "best_contact_name",
    "parse_number_from_wid",
]
