from societyledger.cli.app import main_menu
from societyledger.db import initialize_db
from societyledger.logging import configure_logging, reconfigure


def main() -> None:
    configure_logging()
    initialize_db()
    reconfigure()
    main_menu()


if __name__ == "__main__":
    main()
