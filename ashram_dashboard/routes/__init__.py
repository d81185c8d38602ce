from flask import jsonify


def error_response(error):
    """JSON body and status code for a DashboardError"""
    return jsonify(error.to_dict()), error.status_code
