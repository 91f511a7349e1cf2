# SPDX-License-Identifier: MIT

from taskclock.cleanup import register_cleanup
from taskclock.initialize import initialize
from taskclock.terminal.app import run


def main() -> None:
    initialize()
    register_cleanup()
    run()


if __name__ == "__main__":
    main()
