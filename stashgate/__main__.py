from stashgate.cli.main import main

main()
