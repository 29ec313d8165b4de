from typing import Dict, Mapping, Optional

import bcrypt
from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_pymongo import PyMongo
from pymongo.errors import DuplicateKeyError

from .config import DEFAULT_DATABASE_NAME, load_config
from .errors import AuthError, NotFoundError, ValidationError, guarded
from .orders import expand_order_products, expand_orders, place_order
from .repository import AccountRepository, Datastore
from .serializers import serialize_document
from .storage import S3BlobStore, key_from_url
from .validation import (
    parse_object_id,
    validate_image_upload,
    validate_login,
    validate_profile_picture,
    validate_registration,
)

BCRYPT_MAX_PASSWORD_BYTES = 72


def create_app(
    environ: Optional[Mapping[str, str]] = None,
    database=None,
    blob_store=None,
) -> Flask:
    """Create and configure the Flask application.

    ``database`` and ``blob_store`` replace the MongoDB database and the S3
    client built from configuration; configuration is validated either way.
    """
    app = Flask(__name__)

    # --- Configuration ---
    app.config.update(load_config(environ))
    app.logger.setLevel(app.config["LOG_LEVEL"])

    # --- Initialize extensions ---
    CORS(app, origins=app.config["CORS_ALLOWED_ORIGINS"])

    mongo_client = None
    if database is None:
        mongo = PyMongo(app)
        mongo_client = mongo.cx
        if app.config["MONGO_DB_NAME"]:
            database = mongo.cx[app.config["MONGO_DB_NAME"]]
        elif mongo.db is not None:
            database = mongo.db
        else:
            database = mongo.cx[DEFAULT_DATABASE_NAME]

    if blob_store is None:
        blob_store = S3BlobStore.from_config(app.config)

    datastore = Datastore(database)
    datastore.ensure_indexes()

    app.extensions["storefront"] = {
        "datastore": datastore,
        "blob_store": blob_store,
        "mongo_client": mongo_client,
    }

    # --- Helpers ---

    def read_payload() -> Dict:
        payload = request.get_json(silent=True)
        return payload if isinstance(payload, dict) else {}

    def password_bytes(password: str) -> bytes:
        # bcrypt only reads the first 72 bytes of a password.
        return password.encode("utf-8")[:BCRYPT_MAX_PASSWORD_BYTES]

    def hash_password(password: str) -> str:
        salt = bcrypt.gensalt(rounds=app.config["BCRYPT_ROUNDS"])
        return bcrypt.hashpw(password_bytes(password), salt).decode("utf-8")

    def password_matches(password: str, stored_hash) -> bool:
        if not stored_hash:
            return False
        if isinstance(stored_hash, str):
            stored_hash = stored_hash.encode("utf-8")
        return bcrypt.checkpw(password_bytes(password), stored_hash)

    def public_summary(account) -> Dict:
        return {
            "firstName": account.get("firstName", ""),
            "email": account.get("email", ""),
            "profilePicture": account.get("profilePicture", "") or "",
        }

    def summarize_user(account) -> Dict:
        return {
            "_id": str(account["_id"]),
            "firstName": account.get("firstName", ""),
            "secondName": account.get("secondName", ""),
            "email": account.get("email", ""),
            "profilePicture": account.get("profilePicture", "") or "",
        }

    def register_account(accounts: AccountRepository, role: str):
        payload = read_payload()
        fields, error = validate_registration(payload)
        if error:
            return error.to_response()

        if accounts.email_taken(fields["email"]):
            return ValidationError("Email already registered").to_response()

        profile_picture, error = validate_profile_picture(payload.get("profilePicture"))
        if error:
            return error.to_response()

        document = {
            "firstName": fields["firstName"],
            "secondName": fields["secondName"],
            "email": fields["email"],
            "password": hash_password(fields["password"]),
            "profilePicture": profile_picture,
        }
        try:
            account_id = accounts.create(document)
        except DuplicateKeyError:
            return ValidationError("Email already registered").to_response()

        app.logger.info("Registered %s %s", role, account_id)
        return (
            jsonify(
                {
                    "message": f"{role.capitalize()} registered successfully",
                    role: public_summary(document),
                }
            ),
            201,
        )

    def login_account(accounts: AccountRepository, role: str, summarize):
        credentials, error = validate_login(read_payload())
        if error:
            return error.to_response()

        account = accounts.find_by_email(credentials["email"], include_password=True)
        # Unknown email and wrong password must stay indistinguishable.
        if not account or not password_matches(credentials["password"], account.get("password")):
            return AuthError("Invalid email or password").to_response()

        return jsonify({"message": "Login successful", role: summarize(account)})

    @app.errorhandler(413)
    def request_too_large(_error):
        return jsonify({"error": "Request payload exceeds the size limit"}), 413

    # --- ROUTES ---

    # Catalog
    @app.route("/upload", methods=["POST"])
    @guarded("Upload failed", "Upload error")
    def upload_image():
        upload, error = validate_image_upload(read_payload())
        if error:
            return error.to_response()

        url = blob_store.upload(upload["data"], upload["subtype"])
        datastore.images.create(url, upload["name"], upload["price"], upload["description"])
        return jsonify({"url": url})

    @app.route("/images", methods=["GET"])
    @guarded("Fetch failed", "Fetch error")
    def list_images():
        return jsonify([serialize_document(image) for image in datastore.images.list_all()])

    @app.route("/cart-items", methods=["POST"])
    @guarded("Fetch failed", "Fetch cart items error")
    def list_cart_items():
        ids = read_payload().get("ids")
        if not isinstance(ids, list):
            return ValidationError("IDs must be an array").to_response()

        image_ids = [object_id for object_id in map(parse_object_id, ids) if object_id is not None]
        images = datastore.images.find_by_ids(image_ids) if image_ids else {}
        return jsonify([serialize_document(image) for image in images.values()])

    @app.route("/delete-image/<image_id>", methods=["DELETE"])
    @guarded("Delete failed", "Delete error")
    def delete_image(image_id: str):
        object_id = parse_object_id(image_id)
        if object_id is None:
            return ValidationError("Invalid image ID").to_response()

        image = datastore.images.find_by_id(object_id)
        if not image:
            return NotFoundError("Image not found").to_response()

        key = key_from_url(image.get("url"))
        blob_removed = blob_store.delete(key)
        if not blob_removed:
            app.logger.warning("Image %s deleted but blob %s could not be removed", image_id, key)

        datastore.images.delete(object_id)
        return jsonify({"message": "Product deleted successfully"})

    # Admins
    @app.route("/create-admins", methods=["POST"])
    @guarded("Registration failed", "Create admin error")
    def create_admin():
        return register_account(datastore.admins, "admin")

    @app.route("/admin-login", methods=["POST"])
    @guarded("Login failed", "Admin login error")
    def admin_login():
        return login_account(datastore.admins, "admin", public_summary)

    @app.route("/admin/profile", methods=["GET"])
    @guarded("Failed to fetch profile", "Profile error")
    def admin_profile():
        email = request.args.get("email")
        if not email:
            return ValidationError("Email is required").to_response()

        admin = datastore.admins.find_by_email(email)
        if not admin:
            return NotFoundError("Admin not found").to_response()

        return jsonify({"admin": serialize_document(admin)})

    @app.route("/admin/admins", methods=["GET"])
    @guarded("Fetch failed", "Get admins error")
    def list_admins():
        return jsonify([serialize_document(admin) for admin in datastore.admins.list_all()])

    @app.route("/admin/users", methods=["GET"])
    @guarded("Fetch failed", "Get users error")
    def list_users():
        return jsonify([serialize_document(user) for user in datastore.users.list_all()])

    # Users
    @app.route("/create-users", methods=["POST"])
    @guarded("Registration failed", "Create user error")
    def create_user():
        return register_account(datastore.users, "user")

    @app.route("/user-login", methods=["POST"])
    @guarded("Login failed", "User login error")
    def user_login():
        return login_account(datastore.users, "user", summarize_user)

    # Orders
    @app.route("/create-order", methods=["POST"])
    @guarded("Order creation failed", "Create order error")
    def create_order():
        order, error = place_order(datastore, read_payload())
        if error:
            return error.to_response()

        app.logger.info("Created order %s for user %s", order["_id"], order["userId"])
        return jsonify({"order": serialize_document(order)}), 201

    @app.route("/orders", methods=["GET"])
    @guarded("Fetch failed", "Fetch orders error")
    def list_orders():
        orders = expand_orders(datastore, datastore.orders.list_all())
        return jsonify([serialize_document(order) for order in orders])

    @app.route("/order/<order_id>", methods=["GET"])
    @guarded("Fetch failed", "Fetch order error")
    def get_order(order_id: str):
        object_id = parse_object_id(order_id)
        if object_id is None:
            return ValidationError("Invalid order ID").to_response()

        order = datastore.orders.find_by_id(object_id)
        if not order:
            return NotFoundError("Order not found").to_response()

        return jsonify({"order": serialize_document(expand_order_products(datastore, order))})

    @app.route("/health")
    def health():
        return {"status": "ok"}, 200

    return app


def close_resources(app: Flask) -> None:
    """Release the database and blob store clients created by ``create_app``."""
    resources = app.extensions.get("storefront") or {}
    mongo_client = resources.get("mongo_client")
    if mongo_client is not None:
        mongo_client.close()
    blob_store = resources.get("blob_store")
    if blob_store is not None:
        blob_store.close()
