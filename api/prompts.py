VERIFICATION_PROMPT = """Analyze this image of waste and provide a JSON response with the following fields:
- wasteType: the type of waste shown (e.g., "Plastic Bottles", "Electronic Waste", "Food Waste", or "No waste detected" if no waste is visible)
- quantity: estimated amount in kilograms (e.g., "2.5", or "0" if no waste)
- confidence: a number between 0 and 1 indicating confidence in the analysis

Expected waste:
- Type: {expected_waste_type}
- Amount: {expected_amount} kg

Important guidelines:
- If no waste is visible, respond with wasteType: "No waste detected" and quantity: "0"
- Be lenient with type matching (similar types should match)
- For quantity:
  * Expected amount is {expected_amount} kg
  * Must be within 50% of expected amount
  * Reject if more than 3x or less than 0.3x the expected amount
- Provide quantity as a number only (without 'kg')
- Be very strict with quantity estimation

Format response as valid JSON only:
{{"wasteType": "...", "quantity": "...", "confidence": 0.9}}"""


def build_verification_prompt(expected_waste_type, expected_amount):
    return VERIFICATION_PROMPT.format(
        expected_waste_type=expected_waste_type,
        expected_amount=expected_amount,
    )
