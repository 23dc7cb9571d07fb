from .parse import main

main()
