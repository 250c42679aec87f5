from sieve_alchemy.cli import add_filter_commands as build_cli_interface


def run_cli() -> None:  # pragma: no cover
    """Sieve Alchemy CLI"""
    build_cli_interface()()


if __name__ == "__main__":  # pragma: no cover
    run_cli()
