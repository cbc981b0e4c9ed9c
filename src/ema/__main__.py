"""EMA - Main CLI entry point."""

from dotenv import load_dotenv

load_dotenv()

from ema.cli.main import app


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
