from fortune_wheel.schemas.base import CamelModel


class AdminLogin(CamelModel):
    password: str | None = None


class AdminLoginResponse(CamelModel):
    success: bool
