import os
import sys
from argparse import ArgumentParser, Namespace, RawTextHelpFormatter

from bbblox import __version__
from bbblox.bbblox_log import log
from bbblox.bbblox_run import bbblox_run


def parse_args(argv: list[str] | None = None) -> Namespace:  # noqa: D103
    parser: ArgumentParser = ArgumentParser(
        prog="bbblox-installer",
        description="Install the BubbaBlox Player through Wine",
        epilog=(
            "Must be run as root, e.g. 'sudo bbblox-installer'.\n"
            "Set BBBLOX_LOG=1 for debug output."
        ),
        formatter_class=RawTextHelpFormatter,
    )
    parser.add_argument(
        "-v",
        "--version",
        action="store_true",
        help="show this version and exit",
    )
    parser.add_argument(
        "--config", help=("path to TOML file overriding the defaults")
    )

    return parser.parse_args(sys.argv[1:] if argv is None else argv)


def main(argv: list[str] | None = None) -> int:  # noqa: D103
    args: Namespace = parse_args(argv)

    if args.version:
        print(
            f"bbblox-installer version {__version__} ({sys.version})",
            file=sys.stderr,
        )
        return 0

    # Adjust logger for debugging when configured
    if os.environ.get("BBBLOX_LOG") in {"1", "debug"}:
        log.set_formatter(os.environ["BBBLOX_LOG"])
        for key, val in os.environ.items():
            log.debug("%s=%s", key, val)

    if os.geteuid() != 0:
        log.error("This installer must be run as root (sudo).")
        return 1

    try:
        return bbblox_run(args)
    except KeyboardInterrupt:
        log.warning("Keyboard Interrupt")
    except (OSError, RuntimeError, ValueError, KeyError) as e:
        log.error(e)
        log.debug("Traceback:", exc_info=True)

    return 1


if __name__ == "__main__":
    sys.exit(main())
