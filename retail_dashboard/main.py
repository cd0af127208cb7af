from __future__ import annotations

from retail_dashboard.core.application import create_application

# Instância global para uvicorn: `uvicorn retail_dashboard.main:app --reload`
app = create_application()
