"""
Entry point for the EvenChess simulator backend.

    python web_main.py        ← WebSocket hub endpoint on :8000/ws/hub
"""

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "evenchess.web.app:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
