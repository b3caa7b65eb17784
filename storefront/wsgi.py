# storefront/wsgi.py
from storefront.app import create_app

# For gunicorn: gunicorn storefront.wsgi:app
app = create_app()


if __name__ == "__main__":
    app.run(debug=True)
