from hueprom.cli import main

main()
