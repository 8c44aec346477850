import uvicorn
from logwhisperer.core.config import settings
from logwhisperer.core.logging import setup_logging

def main():
    setup_logging()
    uvicorn.run("logwhisperer.api:app", host=settings.host, port=settings.port, reload=False)

if __name__ == "__main__":
    main()
