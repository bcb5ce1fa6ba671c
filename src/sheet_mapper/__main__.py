from sheet_mapper import cli

if __name__ == "__main__":
    cli.app()
