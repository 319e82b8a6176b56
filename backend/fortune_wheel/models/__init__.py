from fortune_wheel.models.game import Game, ScheduleType, RUN_ONCE_PLACEHOLDER_CRON
from fortune_wheel.models.employee import Employee
from fortune_wheel.models.winner import Winner, DrawTrigger, FORMER_EMPLOYEE_NAME

__all__ = [
    "Game", "ScheduleType", "RUN_ONCE_PLACEHOLDER_CRON",
    "Employee",
    "Winner", "DrawTrigger", "FORMER_EMPLOYEE_NAME",
]
