from porepbench.cli import main

main()
