from tmuxcatch.cli import main

main()
