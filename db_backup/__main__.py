from db_backup.cli import main

main()
