import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # Data files
    data_dir: str = os.getenv("LIBRARY_DATA_DIR", ".")
    users_file: str = os.getenv("LIBRARY_USERS_FILE", "users.txt")
    books_file: str = os.getenv("LIBRARY_BOOKS_FILE", "books.txt")
    transactions_file: str = os.getenv("LIBRARY_TRANSACTIONS_FILE", "transactions.txt")

    # Lending rules
    loan_limit: int = int(os.getenv("LIBRARY_LOAN_LIMIT", "3"))

    # Session
    login_attempts: int = int(os.getenv("LIBRARY_LOGIN_ATTEMPTS", "3"))
    hide_password: bool = _env_bool("LIBRARY_HIDE_PASSWORD", "True")

    # Application
    app_name: str = os.getenv("APP_NAME", "Library Management System")
    log_level: str = os.getenv("LIBRARY_LOG_LEVEL", "WARNING")


settings = Settings()
