import uvicorn

from moodlist.config import load_settings

if __name__ == "__main__":
    settings = load_settings()
    uvicorn.run("moodlist.api:app", host="0.0.0.0", port=settings.port, log_level=settings.log_level.lower())
