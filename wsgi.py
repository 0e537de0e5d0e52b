from stockbook import create_app, db
import os

config_name = os.environ.get('FLASK_ENV', 'production')
app = create_app(config_name)

# Tables are created on startup; schema is additive only
with app.app_context():
    db.create_all()

if __name__ == "__main__":
    app.run()
