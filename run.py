"""
Development server entry point
Run the gateway with: python run.py
"""
from app import create_app

# Create Flask app instance
app = create_app()

if __name__ == '__main__':
    settings = app.extensions['settings']
    host = '0.0.0.0'

    print(f"""
    ========================================
    Starting MedCare API Gateway
    ========================================
    Host: {host}
    Port: {settings.port}
    Environment: {settings.env}
    Clinic Service: {app.config['CLINIC_SERVICE_URL']}
    Files Service: {app.config['FILES_SERVICE_URL']}
    ========================================
    """)

    app.run(
        host=host,
        port=settings.port,
        debug=app.debug,
        threaded=True  # Allow multiple requests
    )
