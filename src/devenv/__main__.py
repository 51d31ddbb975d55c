from .cli import main

main(prog_name="dev-env")
