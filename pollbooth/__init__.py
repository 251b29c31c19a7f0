from dotenv import load_dotenv
from flask import Flask
from flasgger import Swagger

from .config import Config
from .errors import register_error_handlers, register_jwt_error_handlers
from .extensions import db, migrate, jwt, ma, mail
from .log import configure_logging
from .middleware.request_id import init_request_id
from .models.token_blocklist import TokenBlocklist
from .swagger_config import swagger_template

load_dotenv()

def create_app(config_class=Config) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_class)
    configure_logging(app)
    Swagger(app, template=swagger_template(app))

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    ma.init_app(app)
    mail.init_app(app)

    # Middleware + errors
    init_request_id(app)
    register_error_handlers(app)
    register_jwt_error_handlers(jwt)

    # Blueprint imports
    from .api.auth.routes import auth_bp
    from .api.booths.routes import booths_bp
    from .api.membership.routes import membership_bp
    from .api.voting.routes import voting_bp
    from .api.results.routes import results_bp

    # Blueprints
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(booths_bp, url_prefix="/api/booths")
    app.register_blueprint(membership_bp, url_prefix="/api/booths")
    app.register_blueprint(voting_bp, url_prefix="/api/booths")
    app.register_blueprint(results_bp, url_prefix="/api/booths")

    # Health check
    @app.get("/health")
    def health():
        return {"status": "ok"}, 200

    # JWT token revocation check
    @jwt.token_in_blocklist_loader
    def is_token_revoked(jwt_header, jwt_payload) -> bool:
        jti = jwt_payload.get("jti")
        if not jti:
            return True
        return TokenBlocklist.is_blocklisted(jti)

    return app
