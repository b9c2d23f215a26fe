"""Allow ``python -m agentdag``."""

from agentdag.cli.main import main

if __name__ == "__main__":
    main()
