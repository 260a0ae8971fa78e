from wipsquash.cli import main

main()
