from .assistant import assistant_bp
from .history import history_bp
from .reports import reports_bp
from .system import system_bp
