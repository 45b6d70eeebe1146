from flask import Flask, request, jsonify, Response
import os
import random
import stripe
from flask_cors import CORS

from utils import (
    logger,
    generate_icon_svg,
    convert_svg_to_png,
    IconGenerationError,
)
from fonts import FontStyle, build_icon_prompt, default_font_registry
from logo_composer import Canvas, compose_logo, render_logo_document
from shared_functions import (
    AuthError,
    CaptchaError,
    InsufficientCreditsError,
    get_user_id_from_token,
    verify_captcha,
    get_credit_balance,
    ensure_credits,
    charge_generation,
    list_transactions,
    filter_transactions,
    save_logo,
    list_logos,
)
from payments import (
    PaymentError,
    PaymentConfigError,
    list_products,
    create_checkout_session,
    handle_stripe_event,
    verify_payment,
)

app = Flask(__name__)

# Configure CORS with specific settings
CORS(app,
     origins=[origin.strip() for origin in os.getenv('CORS_ORIGINS', 'http://localhost:3000').split(',') if origin.strip()],
     methods=['GET', 'POST', 'OPTIONS'],
     allow_headers=['Content-Type', 'Authorization'],
     supports_credentials=True)

DEFAULT_FONT_STYLE = FontStyle.ELEGANT

# Font registry and random source used to pick the wordmark font
font_registry = default_font_registry()
font_rng = random.Random()


def error_response(message, status):
    return jsonify({"error": message}), status


def authenticate():
    return get_user_id_from_token(request.headers.get('Authorization'))


def parse_canvas(data):
    """Build a Canvas from a request payload, or None when no canvas was sent"""
    if not data:
        return None
    if not isinstance(data, dict):
        raise ValueError("canvas must be an object")
    try:
        width = float(data['width'])
        height = float(data['height'])
        label_x = float(data['labelX'])
        label_y = float(data['labelY'])
    except KeyError as e:
        raise ValueError(f"canvas is missing '{e.args[0]}'")
    except (TypeError, ValueError):
        raise ValueError("canvas values must be numbers")
    if width <= 0 or height <= 0:
        raise ValueError("canvas width and height must be positive")
    view_box = data.get('viewBox')
    if view_box is not None and not isinstance(view_box, str):
        raise ValueError("canvas viewBox must be a string")
    return Canvas(width=width, height=height, label_x=label_x, label_y=label_y,
                  view_box=view_box)


@app.route('/health', methods=['GET'])
def health():
    return jsonify({"status": "ok"})


@app.route('/api/generate-logo', methods=['POST'])
def generate_logo():
    """Generate an icon for the brand and compose it with a styled wordmark"""
    data = request.json or {}
    brand_name = data.get('brandName') or ''
    icon_description = data.get('iconDescription') or ''

    if not isinstance(brand_name, str):
        return error_response("brandName must be a string", 400)
    if not isinstance(icon_description, str):
        return error_response("iconDescription must be a string", 400)
    icon_description = icon_description.strip()
    if not icon_description:
        return error_response("No icon description provided", 400)

    try:
        font_style = FontStyle.parse(data.get('fontStyle') or DEFAULT_FONT_STYLE)
        canvas = parse_canvas(data.get('canvas'))
    except ValueError as e:
        return error_response(str(e), 400)

    try:
        user_id = authenticate()
    except AuthError as e:
        logger.warning(f"Auth failed for /api/generate-logo: {e}")
        return error_response(str(e), 401)

    try:
        logger.info("=" * 80)
        logger.info(f"Starting logo request for user {user_id}: brand length {len(brand_name)}, style {font_style.value}")
        logger.info("=" * 80)

        ensure_credits(user_id)

        logger.info("[STAGE 1: Font Selection]")
        font = font_registry.get_font(font_style, rng=font_rng)

        logger.info("[STAGE 2: Icon Generation]")
        prompt = build_icon_prompt(icon_description, font_style)
        raw_icon = generate_icon_svg(prompt)

        logger.info("[STAGE 3: Composition]")
        result = compose_logo(raw_icon, brand_name, font)
        document = render_logo_document(result, canvas) if canvas is not None else None

        charge_generation(user_id)

        response_data = {
            "success": True,
            "icon": result.icon_markup,
            "text": result.label_markup,
            "fontFace": result.font_face_markup,
            "fontFamily": result.font_family,
            "fontStyle": font_style.value,
            "layout": {
                "fontSize": result.layout.font_size,
                "iconScale": result.layout.icon_scale,
                "translateOffset": result.layout.translate_offset,
            },
        }
        if document is not None:
            response_data["svg"] = document

        logger.info(f"Logo generated for user {user_id}")
        return jsonify(response_data)

    except InsufficientCreditsError as e:
        return error_response(str(e), 402)
    except IconGenerationError as e:
        logger.error(f"Icon generation failed: {str(e)}")
        return error_response("Failed to generate logo", 502)
    except Exception as e:
        logger.exception(f"Error in generate_logo: {str(e)}")
        return error_response("Failed to generate logo", 500)


@app.route('/api/render-png', methods=['POST'])
def render_png():
    """Rasterize a composed SVG document for download"""
    data = request.json or {}
    svg_code = data.get('svg')
    if not svg_code:
        return error_response("No SVG provided", 400)

    try:
        width = int(data['width']) if data.get('width') else None
    except (TypeError, ValueError):
        return error_response("width must be an integer", 400)

    try:
        png_data = convert_svg_to_png(svg_code, output_width=width)
    except Exception as e:
        logger.error(f"Error rendering PNG: {str(e)}")
        return error_response("Failed to render PNG", 500)

    return Response(png_data, mimetype='image/png',
                    headers={"Content-Disposition": 'attachment; filename="logo.png"'})


@app.route('/api/credits', methods=['GET'])
def get_credits():
    try:
        user_id = authenticate()
        return jsonify({"credits": get_credit_balance(user_id)})
    except AuthError as e:
        return error_response(str(e), 401)
    except LookupError:
        return jsonify({"credits": 0})
    except Exception as e:
        logger.error(f"Error fetching credits: {str(e)}")
        return error_response("Failed to fetch credits", 500)


@app.route('/api/transactions', methods=['GET'])
def get_transactions():
    """Paged credit transaction history with search and type filter"""
    page = request.args.get('page', 0, type=int)
    limit = request.args.get('limit', 10, type=int)
    search = request.args.get('search', '')
    kind = request.args.get('filter', 'all')

    try:
        user_id = authenticate()
        result = list_transactions(user_id, page=page, limit=limit)
        result["items"] = filter_transactions(result["items"], search=search, kind=kind)
        return jsonify(result)
    except AuthError as e:
        return error_response(str(e), 401)
    except ValueError as e:
        return error_response(str(e), 400)
    except Exception as e:
        logger.error(f"Error fetching transactions: {str(e)}")
        return error_response("Failed to fetch transactions", 500)


@app.route('/api/logos', methods=['GET'])
def get_logos():
    try:
        user_id = authenticate()
        return jsonify({"logos": list_logos(user_id)})
    except AuthError as e:
        return error_response(str(e), 401)
    except Exception as e:
        logger.error(f"Error fetching logo history: {str(e)}")
        return error_response("Failed to fetch logos", 500)


@app.route('/api/logos', methods=['POST'])
def post_logo():
    """Save a finished logo to the user's gallery"""
    data = request.json or {}
    svg_code = data.get('svg')
    if not svg_code:
        return error_response("No SVG provided", 400)

    try:
        user_id = authenticate()
        logo = save_logo(
            user_id,
            svg_code,
            brand_name=data.get('brandName', ''),
            icon_description=data.get('iconDescription', ''),
            font_style=data.get('fontStyle', ''),
            font_family=data.get('fontFamily', ''),
        )
        return jsonify({"success": True, "logo": logo}), 201
    except AuthError as e:
        return error_response(str(e), 401)
    except Exception as e:
        logger.error(f"Error saving logo: {str(e)}")
        return error_response("Failed to save logo", 500)


@app.route('/api/products', methods=['GET'])
def get_products():
    try:
        return jsonify({"products": list_products()})
    except Exception as e:
        logger.error(f"Error fetching products: {str(e)}")
        return error_response("Failed to fetch products", 500)


@app.route('/api/checkout', methods=['POST'])
def checkout():
    """Create a Stripe Checkout session for a credit pack"""
    data = request.json or {}
    plan = data.get('plan')
    if not plan:
        return error_response("Plan is required", 400)

    try:
        user_id = authenticate()
        return jsonify(create_checkout_session(user_id, plan))
    except AuthError as e:
        return error_response(str(e), 401)
    except PaymentConfigError as e:
        logger.error(f"Checkout unavailable: {str(e)}")
        return error_response(str(e), 503)
    except PaymentError as e:
        return error_response(str(e), 400)
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating checkout: {str(e)}")
        return error_response("Failed to create checkout session", 502)
    except Exception as e:
        logger.error(f"Error creating checkout session: {str(e)}")
        return error_response("Failed to create checkout session", 500)


@app.route('/api/webhooks/stripe', methods=['POST'])
def stripe_webhook():
    payload = request.get_data()
    signature = request.headers.get('Stripe-Signature', '')

    try:
        event_type = handle_stripe_event(payload, signature)
        return jsonify({"received": True, "type": event_type})
    except PaymentConfigError as e:
        logger.error(f"Webhook not configured: {str(e)}")
        return error_response("Webhook handler failed", 500)
    except (ValueError, stripe.SignatureVerificationError, PaymentError) as e:
        logger.error(f"Webhook error: {str(e)}")
        return error_response(str(e) or "Webhook handler failed", 400)
    except Exception as e:
        logger.error(f"Failed to log credit transaction: {str(e)}")
        return error_response("Failed to log credit transaction", 500)


@app.route('/api/verify-payment', methods=['POST'])
def verify_payment_route():
    data = request.json or {}
    try:
        return jsonify(verify_payment(data.get('sessionId')))
    except PaymentError as e:
        return error_response(str(e), 400)
    except Exception as e:
        logger.error(f"Error verifying payment: {str(e)}")
        return error_response("Failed to verify payment", 500)


@app.route('/api/verify-captcha', methods=['POST'])
def verify_captcha_route():
    data = request.json or {}
    try:
        if verify_captcha(data.get('token')):
            return jsonify({"success": True})
        return jsonify({"success": False, "message": "hCaptcha verification failed"}), 400
    except CaptchaError as e:
        return jsonify({"success": False, "message": str(e)}), 400
    except Exception as e:
        logger.error(f"hCaptcha verification error: {str(e)}")
        return jsonify({"success": False, "message": "Server error"}), 500


if __name__ == '__main__':
    port = int(os.getenv('PORT', 5000))

    # Use 0.0.0.0 in production and 127.0.0.1 for local development
    host = '0.0.0.0' if os.getenv('PORT') else '127.0.0.1'

    # Disable debug mode in production
    debug = not bool(os.getenv('PORT'))

    logger.info(f"Starting Flask application on {host}:{port} (debug={debug})")
    app.run(host=host, port=port, debug=debug)
