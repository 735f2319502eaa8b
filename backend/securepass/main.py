from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from securepass.api import router

APP_NAME = "Secure Pass"
APP_VERSION = "1.0.1"

app = FastAPI(title=f"{APP_NAME} Core", version=APP_VERSION)

# Enable CORS for local development (Frontend on different port)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"], # Secure this in production/package
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api")

@app.get("/")
def health_check():
    return {"status": f"{APP_NAME} Engine Running", "version": APP_VERSION}
