from skillsync.cli.main import app


def main():
    """Entry point for the ``skillsync`` console script."""
    app()


if __name__ == "__main__":
    main()
