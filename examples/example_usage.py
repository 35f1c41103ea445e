"""Example: drive the service layer directly, without Flask.

Controllers stay thin; the fee rules live in the services and processors.
"""

import importlib

from config import get_settings_module

from src.fee_compliance.fee_compliance.container import build_container


def main():
    settings = importlib.import_module(get_settings_module())
    container = build_container(db_config=settings.DB_CONFIG)
    resolved = container.reminder_service.resolve_due_dates(1)
    print(resolved.source.value, [d.isoformat() for d in resolved.due_dates])
    print(container.reminder_service.stats().as_dict())


if __name__ == "__main__":
    main()
