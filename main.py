# file: main.py

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

load_dotenv()

from app.controllers.itinerary import router as itinerary_router

app = FastAPI(title="Itinerary API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(itinerary_router, prefix="/api/itineraries", tags=["itineraries"])


@app.get("/")
async def root():
    return {"message": "Itinerary API is running"}
