from rel.cli.app import main

main()
