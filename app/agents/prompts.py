"""Prompts for the text-generation service: vehicle disambiguation and flagged transaction analysis."""

VEHICLE_MATCH_SYSTEM_PROMPT = (
    "You are a vehicle matching expert. Analyze fuel transactions and match them to the correct fleet "
    "vehicle based on odometer readings, location patterns, and driver information."
)

VEHICLE_MATCH_USER_TEMPLATE = """Given this fuel transaction:
- Odometer: {odometer}
- Fuel Type: {fuel_type}
- Driver: {driver}
- Location: {location}
- Custom Vehicle ID: {vehicle_id}
- Vehicle Description: {vehicle_description}

Candidate vehicles:
{candidates}

Which vehicle is the best match? Respond ONLY with: number confidence
Example: 1 85
Where number is 1-{count} and confidence is 0-100."""

CANDIDATE_LINE_TEMPLATE = "{position}. {label} - Current Odometer: {odometer} (difference: {delta} miles)"

ANALYST_SYSTEM_PROMPT = (
    "You are a financial analyst specializing in transaction validation and fraud detection. "
    "Provide clear, concise analysis."
)

ANALYST_USER_TEMPLATE = """You are a financial analyst reviewing a flagged transaction.

Transaction Details:
- Date: {date}
- Amount: ${amount}
- Vendor: {vendor}
- Description: {memo}
- Category: {category}

Flag Reason: {flag_reason}

Please analyze this transaction and provide:
1. Assessment of the flag validity
2. Potential risks or concerns
3. Recommendation (Approve/Reject/Request More Info)
4. Suggested actions

Keep the analysis concise and professional."""
