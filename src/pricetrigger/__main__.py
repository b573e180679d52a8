from pricetrigger.cli import main

main()
