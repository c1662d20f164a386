from __future__ import annotations

from event_checkin.config.settings import settings
from event_checkin.utils.logging_utils import configure_logging, parse_level


def main() -> None:
    configure_logging(parse_level(settings.log_level))

    from event_checkin.ui.app import CheckinApp

    app = CheckinApp()
    app.run()


if __name__ == "__main__":
    main()
