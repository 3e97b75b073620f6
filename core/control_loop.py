"""
Interactive control loop for a running session.

One-shot mode runs a single command taken from the command line. Interactive
mode repeatedly lets the operator pick an action (fzf or numbered menu),
prompts for a value when the action needs one, dispatches it and shows the new
state. A bad command never ends the loop; quit, Ctrl+C or end of input do.
"""

import logging
from typing import Callable, Optional, Sequence

from core.control import Action, Command, CommandResult, ControlInterpreter, VALUE_PROMPTS
from core.errors import NoInteractiveInputError, ValidationError
from core.selector import fuzzy_select, has_terminal

logger = logging.getLogger(__name__)


class ControlLoop:
    """
    Reads commands and feeds them to a ControlInterpreter.

    Attributes:
        interpreter: ControlInterpreter bound to the running player pair
        selector: Callable(options, prompt) -> Optional[str] for picking actions
        input_func: Line reader used for value prompts
        is_interactive: Callable reporting whether a terminal is attached
    """

    def __init__(self, interpreter: ControlInterpreter,
                 selector: Optional[Callable[[Sequence[str], str], Optional[str]]] = None,
                 input_func: Callable[[str], str] = input,
                 is_interactive: Callable[[], bool] = has_terminal):
        self.interpreter = interpreter
        self.input_func = input_func
        self.selector = selector or (
            lambda options, prompt: fuzzy_select(options, prompt, input_func=input_func)
        )
        self.is_interactive = is_interactive

    @property
    def delay(self) -> float:
        return self.interpreter.engine.delay

    def _report(self, result: CommandResult):
        print(f"[Control] {result.message} (delay {self.delay:+.3f}s)")

    def _report_error(self, error: ValidationError):
        print(f"[Control] ✗ {error}")
        if error.hint:
            print(f"[Control]   {error.hint}")

    def execute(self, command: Command) -> Optional[CommandResult]:
        """
        Dispatch one command and print the outcome.

        Returns:
            The CommandResult, or None if the command was rejected
        """
        try:
            result = self.interpreter.dispatch(command)
        except ValidationError as e:
            self._report_error(e)
            return None
        self._report(result)
        return result

    def run(self, action: Optional[str] = None, value: Optional[str] = None) -> int:
        """
        Run one command when ``action`` is given, else the interactive loop.

        Returns:
            Exit code (0 success, 1 rejected one-shot command)

        Raises:
            NoInteractiveInputError: No action given and no terminal attached
        """
        if action is not None:
            return self.run_once(action, value)
        return self.run_interactive()

    def run_once(self, action: str, value: Optional[str] = None) -> int:
        result = self.execute(Command.parse(action, value))
        return 0 if result is not None else 1

    def run_interactive(self) -> int:
        if not self.is_interactive():
            raise NoInteractiveInputError(
                "Interactive control needs a terminal and none is attached"
            )

        print(f"[Control] Current delay {self.delay:+.3f}s. Pick 'quit' to stop both players.")
        try:
            while True:
                choice = self.selector(Action.valid_names(), "Action")
                if choice is None:
                    print("[Control] No action selected, leaving control (players keep running)")
                    return 0

                command = Command.parse(choice, self._prompt_value(Command.parse(choice).action))
                result = self.execute(command)
                if result is not None and result.terminal:
                    return 0
        except (KeyboardInterrupt, EOFError):
            print("\n[Control] Interrupted, leaving control (players keep running)")
            return 0

    def _prompt_value(self, action: Action) -> Optional[str]:
        prompt = VALUE_PROMPTS.get(action)
        if prompt is None:
            return None
        return self.input_func(f"{prompt}: ")
