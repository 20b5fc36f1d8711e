"""Entry point for clarity."""

import sys

from clarity.errors import WorkbenchError
from clarity.logging import get_logger, setup_logging
from clarity.preflight import assess_batch
from clarity.splitter import split_statements


def _read_sql(path):
    try:
        with open(path, encoding="utf-8") as f:
            return f.read()
    except OSError as e:
        raise WorkbenchError(f"Cannot read {path}: {e.strerror or e}") from e


def print_usage():
    print("Clarity - SQL workbench execution engine")
    print()
    print("Usage: clarity [-v] <option> FILE")
    print()
    print("Options:")
    print("  --split FILE         Print the statements a worksheet would run")
    print("  --check FILE         Print whether running FILE needs confirmation")
    print("  -v, --verbose        Log debug output to stderr")
    print("  --help, -h           Show this help message")


def main(argv=None):
    """Main entry point with argument handling."""
    args = list(sys.argv[1:] if argv is None else argv)

    verbose = False
    for flag in ("-v", "--verbose"):
        while flag in args:
            args.remove(flag)
            verbose = True
    setup_logging(verbose=verbose)
    log = get_logger(__name__)

    if not args or args[0].lower() in ("--help", "-h"):
        print_usage()
        return 0

    option = args[0].lower()
    if option not in ("--split", "--check") or len(args) != 2:
        print_usage()
        return 2

    try:
        text = _read_sql(args[1])
    except WorkbenchError as e:
        log.error("read_failed", path=args[1], error=e.message)
        print(e.message, file=sys.stderr)
        return 1

    statements = split_statements(text)
    log.debug("split", path=args[1], statements=len(statements))

    if option == "--split":
        for i, statement in enumerate(statements, start=1):
            print(f"-- Statement {i}")
            print(statement)
        return 0

    assessment = assess_batch(statements)
    if assessment.should_confirm:
        print(f"Confirmation required: {', '.join(assessment.reasons)}")
    else:
        print("Safe to run")
    print(f"{len(statements)} statement(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
