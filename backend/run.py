import uvicorn

from roboshop.core.config import API_HOST, API_PORT

if __name__ == "__main__":
    uvicorn.run(
        "roboshop.main:app",
        host=API_HOST,
        port=API_PORT,
        reload=True
    )
