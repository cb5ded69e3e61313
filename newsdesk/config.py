import os
from dotenv import load_dotenv

# Ensure env vars are loaded once here
load_dotenv()

# "development" | "production" | "test"
APP_ENV = os.getenv("APP_ENV", "development")
IS_PRODUCTION = APP_ENV == "production"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Frontend origin allowed by CORS
CLIENT_URL = os.getenv("CLIENT_URL")

# JWT settings for bearer tokens issued at login/register
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_DAYS = int(os.getenv("ACCESS_TOKEN_EXPIRE_DAYS", "7"))

# Cloudinary credentials for image uploads
CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET")
IMAGE_FOLDER = os.getenv("IMAGE_FOLDER", "news-site/articles")

# Email deliverability checks at registration
ABSTRACT_API_KEY = os.getenv("ABSTRACT_API_KEY")
VERIFY_EMAIL_EXISTENCE = os.getenv("VERIFY_EMAIL_EXISTENCE", "false").lower() == "true"
