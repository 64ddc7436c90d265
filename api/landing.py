import logging
from flask import Blueprint, jsonify

from dependencies import get_ledger
from extensions import limiter
from models import ImpactData
from .cache_utils import cache_impact_data, get_cached_impact_data

landing_bp = Blueprint('landing_bp', __name__)

FEATURES = [
    {"title": "Eco-Friendly",
     "description": "Contribute to a cleaner environment by reporting and collecting waste."},
    {"title": "Earn Rewards",
     "description": "Get tokens for your contributions to waste management efforts."},
    {"title": "Community-Driven",
     "description": "Be part of a growing community committed to sustainable practices."},
]

FAQ = [
    {"question": "How does Clean-Hero work?",
     "answer": "Clean-Hero is a waste management platform where users can report waste locations, "
               "collect waste, and earn rewards for their environmental contributions."},
    {"question": "How do I earn tokens?",
     "answer": "You earn tokens by collecting reported waste and verifying the collection with a photo. "
               "Each verified collection contributes to your token balance."},
    {"question": "What can I do with earned tokens?",
     "answer": "Tokens can be exchanged for rewards, used to participate in community initiatives, "
               "or traded within our ecosystem."},
    {"question": "How do I verify waste collection?",
     "answer": "Claim a task, collect the waste, then upload a clear photo of it. The photo is checked "
               "against the reported waste type and amount."},
]

CONTACTS = {
    "support": "support@clean-hero.com",
    "partnership": "partners@clean-hero.com",
}


def load_impact_data() -> ImpactData:
    """Impact statistics from the cache, recomputed from the ledger on a miss."""
    cached = get_cached_impact_data()
    if cached:
        return ImpactData.model_validate(cached)
    data = get_ledger().get_impact_data()
    cache_impact_data(data.model_dump())
    return data


@landing_bp.route('/impact', methods=['GET'])
@limiter.exempt
def get_impact():
    try:
        return jsonify(load_impact_data().model_dump()), 200
    except Exception as e:
        # The landing page still renders with zeroed statistics
        logging.error(f"Error fetching impact data: {e}", exc_info=True)
        return jsonify(ImpactData().model_dump()), 200


@landing_bp.route('/landing', methods=['GET'])
@limiter.exempt
def get_landing_content():
    return jsonify({
        "title": "Clean-Hero Waste Management",
        "tagline": "Join our community in making waste management more efficient and rewarding!",
        "features": FEATURES,
        "faq": FAQ,
        "contacts": CONTACTS,
    }), 200
