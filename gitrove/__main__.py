from gitrove.cli import main

main()
