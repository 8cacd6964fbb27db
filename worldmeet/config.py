from decouple import Csv, config

HOST: str = str(config("HOST", default="0.0.0.0"))
PORT: int = config("PORT", default=8000, cast=int)
LOG_LEVEL: str = str(config("LOG_LEVEL", default="INFO"))
LOG_FILE: str | None = config("LOG_FILE", default=None)

CORS_ORIGINS: list[str] = config("CORS_ORIGINS", default="*", cast=Csv())

# Rendezvous-assist servers handed to clients as-is
ICE_SERVERS: list[str] = config(
    "ICE_SERVERS",
    default="stun:stun.l.google.com:19302,stun:stun1.l.google.com:19302",
    cast=Csv(),
)

# Off by default: an active partner learns about a dropped peer through its
# own link failure detection.
NOTIFY_PARTNER_ON_DISCONNECT: bool = config(
    "NOTIFY_PARTNER_ON_DISCONNECT", default=False, cast=bool
)

# Seconds a matched client waits for media before giving up on the partner
NEGOTIATION_TIMEOUT: float = config("NEGOTIATION_TIMEOUT", default=30.0, cast=float)
