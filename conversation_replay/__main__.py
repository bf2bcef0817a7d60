from conversation_replay.cli import main

main()
