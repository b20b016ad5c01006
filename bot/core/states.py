from aiogram.fsm.state import State, StatesGroup


class PhotoRestorationStates(StatesGroup):
    """Chat is inside the restoration workflow and accepts photos."""
    restoring = State()
